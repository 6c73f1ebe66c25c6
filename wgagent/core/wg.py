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
import ipaddress
import subprocess
from typing import Sequence

from .exec import exec_command
from .errors import WireGuardError, AdapterUnavailable, RuntimeDeregisterFailed
from .log import Logger

log = Logger.sublogger("wg")


def _wg_output(cmd_args: Sequence[str], input: str | None = None, timeout: float | None = None) -> str:
  try:
    result = exec_command(cmd_args, input=input, timeout=timeout)
  except FileNotFoundError as e:
    raise AdapterUnavailable(f"command not found: {cmd_args[0]}") from e
  except subprocess.TimeoutExpired as e:
    raise AdapterUnavailable(f"command timed out after {timeout}s: {' '.join(cmd_args)}") from e
  return result.stdout.decode("utf-8").strip()


def genkeyprivate() -> str:
  try:
    privkey = _wg_output(["wg", "genkey"])
  except subprocess.CalledProcessError as e:
    raise WireGuardError("failed to generate private key") from e
  if not privkey:
    raise WireGuardError("invalid empty private key generated")
  return privkey


def genkeypublic(private_key: str) -> str:
  try:
    pubkey = _wg_output(["wg", "pubkey"], input=private_key)
  except subprocess.CalledProcessError as e:
    raise WireGuardError("failed to generate public key") from e
  if not pubkey:
    raise WireGuardError("invalid empty public key generated")
  return pubkey


def genkeypair() -> tuple[str, str]:
  privkey = genkeyprivate()
  pubkey = genkeypublic(privkey)
  return (privkey, pubkey)


class RuntimeSample:
  """
  Counters and liveness information reported by the tunnel runtime
  for one peer, valid only for the duration of one tick.

  ``last_handshake`` is a UNIX timestamp, 0 if the peer never
  completed a handshake.
  """
  def __init__(self,
      public_key: str,
      endpoint: str = "",
      last_handshake: int = 0,
      rx_bytes: int = 0,
      tx_bytes: int = 0,
      keepalive: int = 0) -> None:
    self.public_key = public_key
    self.endpoint = endpoint or ""
    self.last_handshake = int(last_handshake)
    self.rx_bytes = int(rx_bytes)
    self.tx_bytes = int(tx_bytes)
    self.keepalive = int(keepalive)


  def __eq__(self, other: object) -> bool:
    if not isinstance(other, RuntimeSample):
      return False
    return (self.public_key == other.public_key
      and self.endpoint == other.endpoint
      and self.last_handshake == other.last_handshake
      and self.rx_bytes == other.rx_bytes
      and self.tx_bytes == other.tx_bytes
      and self.keepalive == other.keepalive)


  def __hash__(self) -> int:
    return hash(self.public_key)


  def __repr__(self) -> str:
    return f"{self.__class__.__name__}({self.public_key}, rx={self.rx_bytes}, tx={self.tx_bytes}, hs={self.last_handshake})"


def parse_dump(output: str) -> dict[str, RuntimeSample]:
  """
  Parse the output of ``wg show <interface> dump``.

  The first line describes the interface itself and is skipped.
  Every other line is a tab-separated peer record:
  public-key, preshared-key, endpoint, allowed-ips, latest-handshake,
  transfer-rx, transfer-tx, persistent-keepalive.
  """
  samples = {}
  for line in output.splitlines()[1:]:
    fields = line.split("\t")
    if len(fields) < 8:
      log.debug("ignoring unexpected dump line: {}", line)
      continue
    pubkey, _psk, endpoint, _allowed, handshake, rx, tx, keepalive = fields[:8]
    samples[pubkey] = RuntimeSample(
      public_key=pubkey,
      endpoint="" if endpoint == "(none)" else endpoint,
      last_handshake=int(handshake),
      rx_bytes=int(rx),
      tx_bytes=int(tx),
      keepalive=0 if keepalive == "off" else int(keepalive))
  return samples


class WireGuardRuntime:
  """
  Adapter for a running WireGuard interface, driven through the
  ``wg`` and ``wg-quick`` command line tools.
  """
  def __init__(self,
      interface: str,
      timeout: float | None = None,
      save_config: bool = True) -> None:
    self.interface = interface
    self.timeout = timeout
    self.save_config_enabled = save_config
    self.log = log.sublogger(interface)


  def __str__(self) -> str:
    return self.interface


  def list_peers(self) -> dict[str, RuntimeSample]:
    try:
      output = _wg_output(["wg", "show", self.interface, "dump"], timeout=self.timeout)
    except subprocess.CalledProcessError as e:
      raise AdapterUnavailable(f"failed to query interface: {self.interface}") from e
    samples = parse_dump(output)
    self.log.trace("listed {} peers", len(samples))
    return samples


  def show(self) -> str:
    try:
      return _wg_output(["wg", "show", self.interface], timeout=self.timeout)
    except subprocess.CalledProcessError as e:
      raise AdapterUnavailable(f"failed to query interface: {self.interface}") from e


  def register_peer(self, public_key: str, allowed_address: ipaddress.IPv4Address | str) -> None:
    allowed = ipaddress.ip_network(allowed_address)
    try:
      _wg_output(
        ["wg", "set", self.interface, "peer", public_key, "allowed-ips", str(allowed)],
        timeout=self.timeout)
    except subprocess.CalledProcessError as e:
      raise WireGuardError(f"failed to register peer on interface: {self.interface}") from e
    self.log.activity("registered peer {} [{}]", public_key, allowed)
    self.save_config()


  def deregister_peer(self, public_key: str) -> None:
    try:
      _wg_output(
        ["wg", "set", self.interface, "peer", public_key, "remove"],
        timeout=self.timeout)
    except (subprocess.CalledProcessError, AdapterUnavailable) as e:
      raise RuntimeDeregisterFailed(f"failed to deregister peer from interface: {self.interface}") from e
    self.log.activity("deregistered peer {}", public_key)
    self.save_config()


  def save_config(self) -> None:
    if not self.save_config_enabled:
      return
    try:
      _wg_output(["wg-quick", "save", self.interface], timeout=self.timeout)
    except (subprocess.CalledProcessError, AdapterUnavailable) as e:
      self.log.warning("failed to save runtime configuration: {}", e)
