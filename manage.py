#!/usr/bin/env python
"""
Management script for BalanceCycle.

Entry point for the Flask CLI (FLASK_APP=manage.py), giving access to
database migrations (``flask db upgrade``) and the balance administration
commands (``flask balances status``).
"""

from balancecycle.app import create_app

# Create Flask app
app = create_app()


if __name__ == '__main__':
    # Run development server
    app.run(host='0.0.0.0', port=8099, debug=True)
