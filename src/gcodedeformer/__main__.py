"""Entry point for `python -m gcodedeformer`."""
from gcodedeformer.main import main

if __name__ == "__main__":
    main()
