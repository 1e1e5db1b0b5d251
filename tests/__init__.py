# SPDX-License-Identifier: Apache-2.0
"""
cdc-vector-sink tests.

Unit tests for record parsing, namespace resolution, batch building and the
ordered writer, plus property checks over randomized record streams.
"""
