"""Allow `python -m llmp [CONFIG]`."""

from llmp.frontends.cli.main import main

if __name__ == "__main__":
    main()
