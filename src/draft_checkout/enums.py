#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Enumerations for the draft checkout service.

This module defines the enums used to select how cart lines are turned into
sell-able units and to track the state of a checkout attempt and the units it
provisioned.
"""

import enum


class ProvisioningStrategy(str, enum.Enum):
  VARIANT = "variant"
  PRODUCT = "product"
  CUSTOM_LINE_ITEMS = "custom_line_items"


class AttemptStatus(str, enum.Enum):
  PROVISIONING = "provisioning"
  AGGREGATING = "aggregating"
  COMPENSATING = "compensating"
  SUCCEEDED = "succeeded"
  FAILED = "failed"


class UnitState(str, enum.Enum):
  RETAINED = "retained"
  DELETED = "deleted"
  DELETE_FAILED = "delete_failed"
