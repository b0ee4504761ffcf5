import os
import sys

ROOT = os.path.join(os.path.dirname(__file__), "..")

# backend/ modules import each other by bare name; scripts/ hold the CLI tools.
for subdir in ("backend", "scripts"):
    sys.path.insert(0, os.path.join(ROOT, subdir))
