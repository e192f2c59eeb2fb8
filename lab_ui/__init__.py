"""Typer/Rich command-line front end for lab-deployer."""
