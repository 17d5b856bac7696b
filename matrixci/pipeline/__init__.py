# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
matrixci pipeline package.

Answers one question per build leg: did every required hook exit zero?

Subsystems:
  - models: matrix entries, lifecycle stages, results
  - matrix: expanding the pipeline file into matrix entries
  - plan: binding lifecycle stages to their commands
  - shell: running a single hook command
  - cache: per-entry dependency cache directories
  - runner: executing entries and aggregating results
  - reporting: writing structured results
"""
