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
import setuptools

import wgagent

with open("README.md", "r") as readme_f:
  readme_contents = readme_f.read()

setuptools.setup(
  name=wgagent.__name__,
  version=wgagent.__version__,
  author=wgagent.__author__,
  author_email=wgagent.__email__,
  description=wgagent.__doc__,
  license="Apache-2.0",
  long_description=readme_contents,
  long_description_content_type="text/markdown",
  packages=setuptools.find_packages(exclude=["test", "test.*"]),
  package_data={
    "wgagent": [
      "templates/*",
    ]
  },
  entry_points={
    "console_scripts": [
      "wgagent=wgagent.cli.wgagent:main",
    ],
  },
  classifiers=[
    "Development Status :: 3 - Alpha",
    "Programming Language :: Python :: 3",
    "License :: OSI Approved :: Apache Software License",
    "Operating System :: POSIX :: Linux",
  ],
  python_requires=">=3.10, <4",
  install_requires=[
    "pyyaml>=5.1",
    "Jinja2",
    "termcolor",
    "lockfile",
    "tabulate",
  ],
  extras_require={
    "test": [
      "pytest",
    ],
  },
)
