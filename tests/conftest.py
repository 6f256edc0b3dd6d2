import sys
import os

# Put the repository root on sys.path so tests can import the top-level modules ('normalize', 'scoring', 'cli', ...).
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
