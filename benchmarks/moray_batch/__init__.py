"""Sequential vs batched Moray update benchmark."""
