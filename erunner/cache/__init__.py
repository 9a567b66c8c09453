# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Project registry persistence.

  - models: the pydantic types stored in erunner_cache.json
  - store: whole-document load/rewrite access to that file
"""
