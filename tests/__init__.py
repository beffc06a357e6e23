# SPDX-License-Identifier: Apache-2.0
"""
Custom API SDK tests.

Authentication, request shaping, stream normalization and end-to-end
streaming semantics, all against a fake Anthropic transport.
"""
