# backend/wsgi.py
import atexit

from refood import create_app
from refood.scheduler import get_scheduler

app = create_app()

scheduler = get_scheduler(app)
if scheduler is not None:
    atexit.register(scheduler.shutdown)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=3000)
