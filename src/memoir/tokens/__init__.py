"""Token estimation helpers."""

from memoir.tokens.estimator import CHARS_PER_TOKEN, TokenEstimator, estimate_tokens

__all__ = ["CHARS_PER_TOKEN", "TokenEstimator", "estimate_tokens"]
