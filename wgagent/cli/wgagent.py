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
from pathlib import Path
import argparse
import shutil
import sys
import os

from tabulate import tabulate

from .. import __version__
from ..core.ask import ask_yes_no
from ..core.errors import AdapterUnavailable, ConfigError
from ..core.log import Logger as log
from ..core.qr import encode_qr_from_text
from ..core.render import humanbytes, humanrate, format_hash, format_seconds
from ..agent.agent import Agent
from ..agent.monitor import monitor
from ..agent.state import PeerState
from .cli_helpers import cli_command, cli_command_group, cli_command_main


def _load_agent(args: argparse.Namespace) -> Agent:
  return Agent.open(args.root)


def format_states(states: dict[str, PeerState], tablefmt: str = "simple") -> str:
  rows = []
  for state in sorted(states.values(), key=lambda s: s.name):
    rows.append([
      state.name,
      str(state.address),
      "online" if state.online else "offline",
      state.endpoint or "-",
      format_seconds(state.seconds_since_handshake),
      humanrate(state.rx_rate),
      humanrate(state.tx_rate),
      humanbytes(state.rx_bytes),
      humanbytes(state.tx_bytes),
    ])
  return tabulate(rows,
    headers=["Peer", "Address", "Status", "Endpoint", "Handshake", "RX rate", "TX rate", "RX", "TX"],
    tablefmt=tablefmt)


###############################################################################
# Peer commands
###############################################################################
def peer_add(args: argparse.Namespace) -> None:
  agent = _load_agent(args)
  record = agent.lifecycle.add_peer(args.name)
  print(f"{record.name}\t{record.address}\t{record.public_key}")
  print(agent.registry.profile_path(record.name))
  if args.qr:
    print(encode_qr_from_text(agent.registry.profile(record.name)))


def peer_remove(args: argparse.Namespace) -> None:
  agent = _load_agent(args)
  if not ask_yes_no(f"remove peer {args.name}?"):
    log.warning("peer not removed: {}", args.name)
    return
  record = agent.lifecycle.remove_peer(args.name)
  print(f"removed {record.name} [{record.address}]")


def peer_list(args: argparse.Namespace) -> None:
  agent = _load_agent(args)
  rows = [
    [r.name, str(r.address), r.public_key if args.verbose else format_hash(r.public_key)]
      for r in agent.registry.list()
  ]
  print(tabulate(rows, headers=["Peer", "Address", "Public Key"]))


def peer_show(args: argparse.Namespace) -> None:
  agent = _load_agent(args)
  profile = agent.registry.profile(args.name)
  if args.qr:
    print(encode_qr_from_text(profile))
  else:
    sys.stdout.write(profile)


def peer_export(args: argparse.Namespace) -> None:
  agent = _load_agent(args)
  if not agent.registry.list():
    log.warning("no peers to export")
    return
  output = args.output or Path.cwd() / "wgagent-clients.zip"
  output = Path(output)
  base_name = str(output.parent / output.name.removesuffix(".zip"))
  archive = shutil.make_archive(base_name, "zip", root_dir=agent.config.clients_dir)
  os.chmod(archive, 0o600)
  log.activity("exported peers to {}", archive)
  print(archive)


###############################################################################
# Monitoring commands
###############################################################################
def server_info(args: argparse.Namespace) -> None:
  agent = _load_agent(args)
  config = agent.config
  try:
    public_key = config.server_public_key
  except ConfigError as e:
    log.warning("{}", e)
    public_key = "(missing)"
  endpoint = f"{config.endpoint}:{config.listen_port}" if config.endpoint else "(not configured)"
  print(tabulate([
    ["Interface", config.interface],
    ["Public Key", public_key],
    ["Endpoint", endpoint],
    ["Listen Port", config.listen_port],
    ["Network", str(config.network)],
    ["Server Address", str(config.server_address)],
    ["Peers Directory", str(config.clients_dir)],
    ["Peers", len(agent.registry)],
  ], tablefmt="plain"))
  print()
  try:
    print(agent.runtime.show())
  except AdapterUnavailable as e:
    log.warning("runtime {} unavailable: {}", agent.runtime, e)


def agent_status(args: argparse.Namespace) -> None:
  agent = _load_agent(args)
  states = agent.engine.tick()
  if not agent.engine.runtime_available:
    log.warning("runtime {} unavailable", agent.runtime)
  print(format_states(states))


def agent_monitor(args: argparse.Namespace) -> None:
  agent = _load_agent(args)
  clear = sys.stdout.isatty()

  def _show(states: dict[str, PeerState]) -> None:
    if clear:
      # Clear the screen and move the cursor home
      sys.stdout.write("\033[2J\033[H")
    print(format_states(states))
    for event in agent.engine.last_events:
      print(event.format())
    sys.stdout.flush()

  interval = args.interval if args.interval is not None else agent.config.monitor_interval
  monitor(agent.engine, interval, _show, count=args.count)


def agent_events(args: argparse.Namespace) -> None:
  agent = _load_agent(args)
  for line in agent.sink.tail(args.count):
    print(line)


###############################################################################
# Parser definition
###############################################################################
def _define_parser(subparsers: argparse._SubParsersAction) -> None:
  peer = cli_command_group(subparsers, "peer",
    title="Peer commands",
    help="Add, remove, and inspect the tunnel's peers.")

  cmd_add = cli_command(peer, "add", peer_add,
    help="Add a new peer, assign it an address, and generate its profile.")
  cmd_add.add_argument("name", help="Unique name for the peer.")
  cmd_add.add_argument("--qr", action="store_true", default=False,
    help="Also print the profile as a QR code.")

  cmd_remove = cli_command(peer, "remove", peer_remove,
    help="Remove a peer from the tunnel and delete its files.")
  cmd_remove.add_argument("name", help="Name of the peer to remove.")

  cli_command(peer, "list", peer_list,
    help="List all configured peers.")

  cmd_show = cli_command(peer, "show", peer_show,
    help="Print a peer's client profile.")
  cmd_show.add_argument("name", help="Name of the peer.")
  cmd_show.add_argument("--qr", action="store_true", default=False,
    help="Print the profile as a QR code.")

  cmd_export = cli_command(peer, "export", peer_export,
    help="Export all peer bundles into a zip archive.")
  cmd_export.add_argument("-o", "--output", metavar="FILE", type=Path, default=None,
    help="Path of the generated archive.")

  cli_command(subparsers, "server", server_info,
    help="Print the server's configuration and the state of its interface.")

  cli_command(subparsers, "status", agent_status,
    help="Sample the tunnel once and print the state of every peer.")

  cmd_monitor = cli_command(subparsers, "monitor", agent_monitor,
    help="Periodically sample the tunnel and print the state of every peer.")
  cmd_monitor.add_argument("-i", "--interval", metavar="SECONDS", type=float, default=None,
    help="Seconds between samples. Default: monitor_interval from configuration.")
  cmd_monitor.add_argument("-n", "--count", metavar="COUNT", type=int, default=None,
    help="Stop after this many samples.")

  cmd_events = cli_command(subparsers, "events", agent_events,
    help="Print the most recent peer transitions.")
  cmd_events.add_argument("-n", "--count", metavar="N", type=int, default=20,
    help="Number of events to print (0 for all).")


def main(argv: list[str] | None = None) -> int:
  return cli_command_main(_define_parser, version=__version__, argv=argv)


if __name__ == "__main__":
  sys.exit(main())
