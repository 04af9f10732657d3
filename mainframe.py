#!/usr/bin/env python3
"""
Launcher script for the Clinica Mainframe TUI.

Opens the laboratory and stock movement browsers in the terminal.
"""

import sys

from clinica.adapters.mainframe_tui import main

if __name__ == "__main__":
    print("🚀 Iniciando Clínica - Mainframe Terminal UI...")
    try:
        main()
    except KeyboardInterrupt:
        print("\n👋 Saindo do sistema...")
        sys.exit(0)
