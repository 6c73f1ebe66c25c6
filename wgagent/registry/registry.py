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
import re
import shutil
import tempfile
from pathlib import Path

import yaml

from ..core.data import write_atomic
from ..core.errors import NameCollision, PeerNotFound
from ..core.log import Logger
from .peer_record import PeerRecord, VALID_NAME, validate_name

log = Logger.sublogger("registry")


class PeerRegistry:
  """
  Durable collection of peer records, keyed by name.

  Each record owns a bundle of key material and a rendered client profile.
  Backends must make ``put()`` and ``delete()`` all-or-nothing: a record is
  either fully visible or not visible at all.
  """

  def get(self, name: str) -> PeerRecord | None:
    raise NotImplementedError()

  def list(self) -> list[PeerRecord]:
    raise NotImplementedError()

  def put(self, record: PeerRecord, private_key: str, profile: str) -> None:
    raise NotImplementedError()

  def delete(self, name: str) -> PeerRecord:
    raise NotImplementedError()

  def profile(self, name: str) -> str:
    raise NotImplementedError()

  def __contains__(self, name: str) -> bool:
    return self.get(name) is not None

  def __len__(self) -> int:
    return len(self.list())


class FilesystemPeerRegistry(PeerRegistry):
  """
  Store every peer as a directory ``<root>/<name>/`` containing:

  - ``peer.yml``: the serialized record;
  - ``private.key``, ``public.key``: the peer's key pair;
  - ``client.conf``: the profile to install on the peer.

  Bundles are assembled in a hidden staging directory and renamed into
  place, so a partially written bundle is never listed.
  """
  RECORD_FILE = "peer.yml"
  PRIVATE_KEY_FILE = "private.key"
  PUBLIC_KEY_FILE = "public.key"
  PROFILE_FILE = "client.conf"
  # Files written by older, shell-based installations
  LEGACY_PUBLIC_KEY_FILE = "client_public.key"
  LEGACY_ADDRESS_RE = re.compile(r"^\s*Address\s*=\s*([0-9.]+)", re.MULTILINE)

  def __init__(self, root: Path) -> None:
    self.root = Path(root)


  def _bundle_dir(self, name: str) -> Path:
    validate_name(name)
    return self.root / name


  def _load(self, bundle: Path) -> PeerRecord | None:
    record_file = bundle / self.RECORD_FILE
    if record_file.is_file():
      try:
        serialized = yaml.safe_load(record_file.read_text())
        return PeerRecord.deserialize(serialized)
      except (yaml.YAMLError, KeyError, TypeError, ValueError) as e:
        log.warning("ignoring invalid peer bundle {}: {}", bundle, e)
        return None
    return self._load_legacy(bundle)


  def _load_legacy(self, bundle: Path) -> PeerRecord | None:
    pubkey_file = bundle / self.LEGACY_PUBLIC_KEY_FILE
    profile_file = bundle / self.PROFILE_FILE
    if not pubkey_file.is_file() or not profile_file.is_file():
      return None
    address = self.LEGACY_ADDRESS_RE.search(profile_file.read_text())
    if address is None:
      log.warning("no address found in legacy peer bundle: {}", bundle)
      return None
    return PeerRecord(
      name=bundle.name,
      address=address.group(1),
      public_key=pubkey_file.read_text().strip())


  def get(self, name: str) -> PeerRecord | None:
    bundle = self._bundle_dir(name)
    if not bundle.is_dir():
      return None
    return self._load(bundle)


  def list(self) -> list[PeerRecord]:
    if not self.root.is_dir():
      return []
    records = []
    for bundle in sorted(self.root.iterdir()):
      # Skips staging and trash directories too
      if not bundle.is_dir() or not VALID_NAME.fullmatch(bundle.name):
        continue
      record = self._load(bundle)
      if record is not None:
        records.append(record)
    return records


  def put(self, record: PeerRecord, private_key: str, profile: str) -> None:
    bundle = self._bundle_dir(record.name)
    if bundle.exists():
      raise NameCollision(f"peer already exists: {record.name}")
    self.root.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{record.name}-", dir=self.root))
    try:
      staging.chmod(0o700)
      write_atomic(staging / self.PRIVATE_KEY_FILE, private_key + "\n", mode=0o600)
      write_atomic(staging / self.PUBLIC_KEY_FILE, record.public_key + "\n", mode=0o644)
      write_atomic(staging / self.PROFILE_FILE, profile, mode=0o600)
      write_atomic(staging / self.RECORD_FILE, yaml.safe_dump(record.serialize()), mode=0o644)
      staging.rename(bundle)
    except BaseException:
      shutil.rmtree(staging, ignore_errors=True)
      raise
    log.activity("stored peer {} [{}]", record.name, record.address)


  def delete(self, name: str) -> PeerRecord:
    record = self.get(name)
    if record is None:
      raise PeerNotFound(f"peer not found: {name}")
    # Hide the bundle first, then remove its contents
    trash = Path(tempfile.mkdtemp(prefix=f".{name}-deleted-", dir=self.root))
    self._bundle_dir(name).rename(trash / name)
    shutil.rmtree(trash)
    log.activity("deleted peer {}", name)
    return record


  def profile(self, name: str) -> str:
    if self.get(name) is None:
      raise PeerNotFound(f"peer not found: {name}")
    return (self._bundle_dir(name) / self.PROFILE_FILE).read_text()


  def profile_path(self, name: str) -> Path:
    return self._bundle_dir(name) / self.PROFILE_FILE
