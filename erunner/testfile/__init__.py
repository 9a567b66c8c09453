# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Test-definition files: the `{input} -> {output}` block format that linked
tests are written in, and the iterators that stream records out of it.
"""
