# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Errors raised by the project cache store."""


class CacheError(Exception):
    """Base for all cache document errors."""


class CacheNotInitializedError(CacheError):
    """
    The cache document does not exist.

    The project has never been initialized (or the document was deleted).
    Callers should tell the user to run `erunner init`.
    """


class CacheCorruptedError(CacheError):
    """The cache document exists but is not valid JSON or fails validation."""
