# Copyright 2025 Roger Cibrian
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

"""Project configuration loading for wixpack.

Loads a YAML project file, layers it over shared defaults
(defaults/wixpack.yaml) and built-in defaults, and turns the result into
PackageMetadata for the build pipeline.

Public API:

- load_effective_config: Load and merge configuration for a project file
- metadata_from_config: Extract PackageMetadata from a merged config

Example:
    from pathlib import Path
    from wixpack.config import load_effective_config

    config = load_effective_config(Path("wixpack.yaml"))
    print(config["package"]["name"])
"""

from .loader import load_effective_config, metadata_from_config

__all__ = ["load_effective_config", "metadata_from_config"]
