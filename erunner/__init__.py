# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""erunner: compile, run and test single-file programs with a fingerprint cache."""

__version__ = "0.3.0"
