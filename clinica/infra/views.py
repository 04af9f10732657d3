# clinica/infra/views.py
"""
Criação de views auxiliares usadas pelos repositórios.

Views criadas:
- vw_lab_detalhe:       laboratório com descrição do exame e nome do paciente.
- vw_movimento_detalhe: movimento com medicamento, tipo, setor, lote e fornecedor.

Obs.:
- As views assumem que as migrações já foram aplicadas.
- Um conjunto de índices úteis também é criado, caso não existam.
"""

from __future__ import annotations

from .db import connect


def create_views(db_path: str) -> None:
    with connect(db_path) as c:
        c.executescript(
            """
            DROP VIEW IF EXISTS vw_lab_detalhe;
            CREATE VIEW vw_lab_detalhe AS
            SELECT
                l.code,
                l.created_date,
                l.lab_date,
                e.description                          AS exam,
                l.patient_code,
                COALESCE(p.name, l.patient_name, '')   AS patient_name,
                COALESCE(l.result, '')                 AS result
            FROM laboratory l
            JOIN exam e ON e.code = l.exam_code
            LEFT JOIN patient p ON p.code = l.patient_code;

            DROP VIEW IF EXISTS vw_movimento_detalhe;
            CREATE VIEW vw_movimento_detalhe AS
            SELECT
                m.code,
                m.ref_no,
                m.date,
                m.quantity,
                m.created_by,
                md.code              AS medical_code,
                md.prod_code         AS medical_prod_code,
                md.description       AS medical_description,
                mt.code              AS medical_type_code,
                mt.description       AS medical_type_description,
                t.code               AS type_code,
                t.description        AS type_description,
                t.type               AS type_sign,
                t.category           AS type_category,
                w.code               AS ward_code,
                w.description        AS ward_description,
                lo.code              AS lot_code,
                lo.preparation_date  AS lot_preparation_date,
                lo.due_date          AS lot_due_date,
                lo.cost              AS lot_cost,
                s.name               AS origin
            FROM movement m
            JOIN medical md       ON md.code = m.medical_code
            JOIN medical_type mt  ON mt.code = md.type_code
            JOIN movement_type t  ON t.code = m.type_code
            LEFT JOIN ward w      ON w.code = m.ward_code
            LEFT JOIN lot lo      ON lo.code = m.lot_code
            LEFT JOIN supplier s  ON s.id = m.supplier_id;
            """
        )

        c.executescript(
            """
            CREATE INDEX IF NOT EXISTS idx_lab_date      ON laboratory(lab_date);
            CREATE INDEX IF NOT EXISTS idx_lab_patient   ON laboratory(patient_code);
            CREATE INDEX IF NOT EXISTS idx_mov_date      ON movement(date);
            CREATE INDEX IF NOT EXISTS idx_mov_medical   ON movement(medical_code);
            CREATE INDEX IF NOT EXISTS idx_lot_due       ON lot(due_date);
            """
        )
