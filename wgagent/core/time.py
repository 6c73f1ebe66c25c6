###############################################################################
# Copyright 2020-2024 Andrea Sorbini
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
###############################################################################
from datetime import datetime, timezone


class Timestamp:
  # Format used in the event log
  DEFAULT_FORMAT = "%Y-%m-%d %H:%M:%S"

  def __init__(self, ts: datetime):
    self._ts = ts

  def __str__(self):
    return self.format()

  def __repr__(self):
    return f"{self.__class__.__name__}({self.format()})"

  def format(self, fmt: str | None = None) -> str:
    if fmt is None:
      fmt = self.DEFAULT_FORMAT
    return self._ts.strftime(fmt)

  def from_epoch(self) -> int:
    return int(self._ts.timestamp())

  @staticmethod
  def now() -> "Timestamp":
    return Timestamp(datetime.now(timezone.utc))

  @staticmethod
  def unix(ts: str | int | float) -> "Timestamp":
    return Timestamp(datetime.fromtimestamp(float(ts), timezone.utc))
