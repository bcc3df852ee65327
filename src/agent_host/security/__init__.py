"""Secret masking applied to everything the host traces."""

from agent_host.security.secret_masker import (
    URL_SECRET_GROUP,
    URL_SECRET_PATTERN,
    FailureCallback,
    PatternLike,
    SecretMasker,
    ValueEncoder,
    ValueEncoders,
    create_default_masker,
)

__all__ = [
    "FailureCallback",
    "PatternLike",
    "SecretMasker",
    "URL_SECRET_GROUP",
    "URL_SECRET_PATTERN",
    "ValueEncoder",
    "ValueEncoders",
    "create_default_masker",
]
