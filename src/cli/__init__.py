"""Capa CLI: comandos Typer y renderizado Rich de resultados."""
