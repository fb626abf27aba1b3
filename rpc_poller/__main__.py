"""Allow ``python -m rpc_poller``."""

from rpc_poller.app import main

if __name__ == "__main__":
    main()
