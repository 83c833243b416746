"""MerkleDrop core: encoding, tree, typed data, signatures, models, config."""
