"""Solidity fixtures: mock dependency library and exploit harness template."""
