"""ABIs and function signatures of the deployed contracts."""
