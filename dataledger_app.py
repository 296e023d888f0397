from dataledger import create_app, db
from dataledger.models import User, Permission, Earning, OrphanEvent

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Permission": Permission,
        "Earning": Earning,
        "OrphanEvent": OrphanEvent,
        "ledger": app.extensions['ledger'],
    }


if __name__ == '__main__':
    app.run(debug=True, use_reloader=False)
