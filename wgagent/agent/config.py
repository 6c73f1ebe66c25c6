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
from pathlib import Path

import yaml

from ..core.data import apply_defaults
from ..core.errors import ConfigError
from ..core.log import Logger

log = Logger.sublogger("config")


DEFAULT_ROOT = Path("/etc/wireguard")

CONFIG_FILE = "wgagent.yml"

DEFAULTS = {
  "interface": "wg0",
  "network": "10.10.10.0/24",
  "server_address": "10.10.10.1",
  "clients_dir": "clients",
  "state_dir": "state",
  "event_log": "state/events.log",
  "server_public_key_file": "server_public.key",
  "endpoint": None,
  "listen_port": 51820,
  "dns": "1.1.1.1, 8.8.8.8",
  "mtu": 1280,
  # None means "full tunnel plus the peers' network"
  "allowed_ips": None,
  "keepalive": 25,
  "monitor_interval": 2,
  "runtime_timeout": 5,
  "lock_timeout": 10,
  "save_runtime_config": True,
}


class AgentConfig:
  def __init__(self, root: Path, **settings) -> None:
    self.root = Path(root)
    unknown = set(settings) - set(DEFAULTS)
    if unknown:
      raise ConfigError(f"unknown configuration keys: {', '.join(sorted(unknown))}")
    try:
      values = apply_defaults(settings, DEFAULTS)
      self.interface = str(values["interface"])
      self.network = ipaddress.ip_network(values["network"])
      self.server_address = ipaddress.ip_address(values["server_address"])
      self.listen_port = int(values["listen_port"])
      self.mtu = int(values["mtu"])
      self.keepalive = int(values["keepalive"])
      self.monitor_interval = float(values["monitor_interval"])
      self.runtime_timeout = float(values["runtime_timeout"])
      self.lock_timeout = float(values["lock_timeout"])
    except (TypeError, ValueError) as e:
      raise ConfigError(f"invalid configuration: {e}") from e
    if self.server_address not in self.network:
      raise ConfigError(f"server address {self.server_address} not in {self.network}")
    self.clients_dir = self.root / values["clients_dir"]
    self.state_dir = self.root / values["state_dir"]
    self.event_log = self.root / values["event_log"]
    self.server_public_key_file = self.root / values["server_public_key_file"]
    self.endpoint = values["endpoint"]
    self.dns = values["dns"]
    self.allowed_ips = values["allowed_ips"] or f"0.0.0.0/0, {self.network}"
    self.save_runtime_config = bool(values["save_runtime_config"])


  @property
  def checkpoint_file(self) -> Path:
    return self.state_dir / "checkpoint.yml"


  @property
  def pending_file(self) -> Path:
    return self.state_dir / "pending-deregistration.yml"


  @property
  def lock_file(self) -> Path:
    return self.state_dir / "wgagent.pid"


  @property
  def server_public_key(self) -> str:
    try:
      pubkey = self.server_public_key_file.read_text().strip()
    except FileNotFoundError as e:
      raise ConfigError(f"server public key not found: {self.server_public_key_file}") from e
    if not pubkey:
      raise ConfigError(f"empty server public key: {self.server_public_key_file}")
    return pubkey


  @staticmethod
  def load(root: Path | None = None) -> "AgentConfig":
    root = Path(root or DEFAULT_ROOT)
    config_file = root / CONFIG_FILE
    settings = {}
    if config_file.is_file():
      try:
        settings = yaml.safe_load(config_file.read_text()) or {}
      except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse {config_file}: {e}") from e
      if not isinstance(settings, dict):
        raise ConfigError(f"expected a mapping in {config_file}")
      invalid = sorted(str(k) for k in settings if not isinstance(k, str))
      if invalid:
        raise ConfigError(f"invalid configuration keys in {config_file}: {', '.join(invalid)}")
      log.debug("loaded configuration: {}", config_file)
    else:
      log.debug("no configuration file, using defaults: {}", config_file)
    return AgentConfig(root, **settings)
