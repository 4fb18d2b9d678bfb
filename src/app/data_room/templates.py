"""Built-in data room folder structure.

Every sell-side data room starts from the same ten diligence folders plus
an LOI-restricted folder that buyers only see once an LOI is in place.
The LOI folder is the only optional one.
"""

from __future__ import annotations

from src.app.data_room.schemas import TemplateFolder

STANDARD_TEMPLATE_NAME = "standard"

STANDARD_FOLDERS: list[TemplateFolder] = [
    TemplateFolder(index_number="1", name="Corporate & Legal"),
    TemplateFolder(index_number="2", name="Financials"),
    TemplateFolder(index_number="3", name="Operations"),
    TemplateFolder(index_number="4", name="Client Base & Contracts"),
    TemplateFolder(index_number="5", name="Services & Deliverables"),
    TemplateFolder(index_number="6", name="Marketing & Sales"),
    TemplateFolder(index_number="7", name="Revenue & Performance"),
    TemplateFolder(index_number="8", name="Technology & Integrations"),
    TemplateFolder(index_number="9", name="Human Resources"),
    TemplateFolder(index_number="10", name="Miscellaneous"),
    TemplateFolder(
        index_number="11",
        name="LOI-Restricted Access",
        description="Visible to buyers after an accepted LOI",
        is_loi_restricted=True,
    ),
]
