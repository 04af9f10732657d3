# app.py
"""
Entrypoint da aplicação.

Uso:
  python app.py migrate --db clinica.db
  python app.py lab listar --exame Hemograma --de 01/03/2024 --ate 31/03/2024
  python app.py mov listar --tipo-movimento - --setor UTI
  python app.py mov excluir-ultimo 42
  python app.py importar movimentos movimentos.xlsx
"""

from clinica.adapters.cli import main

if __name__ == "__main__":
    main()
