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
"""Peer state tracking and lifecycle management for a WireGuard server"""

__author__ = "Andrea Sorbini"
__copyright__ = "Copyright 2020-2024, Andrea Sorbini"
__credits__ = [ "Andrea Sorbini" ]
__license__ = "Apache-2.0"
__version__ = "0.1.0"
__maintainer__ = "Andrea Sorbini"
__email__ = "uno@mentalsmash.org"
__status__ = "Prototype"
