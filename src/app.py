# app.py
# Entry point for the talk page service

import sys

from main_app import create_app

app = create_app()


if __name__ == "__main__":
    debug = app.config["DEBUG"] or "debug" in sys.argv
    app.run(debug=debug, host="0.0.0.0", port=5000)
