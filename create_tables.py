# create_tables.py
import sys

from focusboard import create_app, db


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    app = create_app()
    with app.app_context():
        if '--reset' in argv:
            # Drops session history and daily stats as well
            db.drop_all()
        db.create_all()
        print(f"Database tables ready: {', '.join(sorted(db.metadata.tables))}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
