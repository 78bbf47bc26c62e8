# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import importlib.metadata

__version__: str = importlib.metadata.version("purepythonsendmail")
