"""Chain registry and async web3 client."""
