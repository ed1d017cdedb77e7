import sys

from utterance_vad.cli import main

if __name__ == "__main__":
    sys.exit(main())
