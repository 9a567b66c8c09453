# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Building tracked sources and running their tests.

core.py spawns compilers and binaries, decision.py decides when to build,
runner.py orchestrates both against the project cache.
"""
