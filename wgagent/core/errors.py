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


class WgAgentError(Exception):
  def __init__(self, msg: str, *args: object) -> None:
    super().__init__(msg, *args)
    self.msg = msg

  def __str__(self) -> str:
    return self.msg


class ConfigError(WgAgentError):
  pass


class LockTimeout(WgAgentError):
  pass


class WireGuardError(WgAgentError):
  pass


class AdapterUnavailable(WireGuardError):
  """The tunnel runtime could not be reached (missing tool, interface down, timeout)."""
  pass


class RuntimeDeregisterFailed(WireGuardError):
  pass


class CorruptCheckpoint(WgAgentError):
  pass


class InvalidName(WgAgentError):
  pass


class NameCollision(WgAgentError):
  pass


class AddressPoolExhausted(WgAgentError):
  pass


class PeerNotFound(WgAgentError):
  pass
