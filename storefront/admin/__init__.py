from flask import Blueprint

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

# importing attaches the views to admin_bp
from . import orphan_routes        # reconciliation ledger
from . import offline_sale_routes  # in-store sales
