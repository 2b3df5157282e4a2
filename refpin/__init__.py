"""
refpin: pin mutable references in CI and container manifests.

Rewrites GitHub Actions 'uses:' references to full commit SHAs and container
image references to manifest digests, keeping the original tag as a comment.

Usage:
    from refpin.core.replacer import new_actions_replacer
    result = new_actions_replacer().parse_path(".github/workflows")
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
