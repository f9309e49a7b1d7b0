# asynctracker

A small task tracker made of two services that talk to each other through
events:

- **auth** keeps accounts, issues HS256 JWT tokens on login and publishes
  account events to the `Account` topic.
- **task** keeps its own copy of account roles (fed by those account
  events), creates tasks, assigns them at random to active developers, marks
  them completed and publishes `Task.Assigned` / `Task.Completed` events to
  the `Task` topic.

Both services store their data in SQLite through
`asynctracker.database.Database` and exchange messages through
`asynctracker.messaging.InMemoryBroker`, so the whole system runs inside one
Python process.

## Roles

`asynctracker.common.Role` lists the roles an account may have:
`developer`, `admin`, `manager` and `accountant`.

## Wiring the services

```python
from asynctracker.database import Database
from asynctracker.messaging import InMemoryBroker
from asynctracker.auth import service as auth_service
from asynctracker.auth.http_api import create_app as create_auth_app
from asynctracker.task import service as task_service
from asynctracker.task.reader import TaskEventReader
from asynctracker.task.http_api import create_app as create_task_app

signing_key = "secret"
broker = InMemoryBroker()

auth_db = Database("auth.sqlite3")
auth_service.create_schema(auth_db)
accounts = auth_service.AuthService(
    auth_db, auth_service.AuthEventWriter(broker), signing_key
)

task_db = Database("task.sqlite3")
task_service.create_schema(task_db)
tasks = task_service.TaskService(
    task_db, task_service.TaskEventWriter(broker), None
)
TaskEventReader(tasks).start_readers(broker, "consumer-group-task")

auth_app = create_auth_app(accounts, signing_key)
task_app = create_task_app(tasks, signing_key)
```

`TaskEventReader.start_readers` runs a background thread that reads the
`Account` topic and upserts each account's role and active flag in the task
service. Both `auth_app` and `task_app` are ordinary Flask applications and
can be served by any WSGI server.

## Using the services directly

```python
password_hash = "password"
user_id = accounts.create_account("Ada", password_hash, "developer")
signed = accounts.login(user_id, password_hash)

task_id, assignee = tasks.create_task("write the report")
tasks.complete_task(task_id, assignee)
tasks.assign_tasks()
```

`create_task` returns the new task id and the assignee's user id, or `None`
when no active developer is known. `TaskService` takes an optional
`random.Random` as its third argument, so assignment can be made
reproducible.

Failures are raised as subclasses of `asynctracker.common.ServiceError`, for
example `InvalidCredentials`, `AccountNotFound`, `TaskNotFound` and
`NoDevelopersAvailable`.

Note that role changes are published with the `Account.Created` key, so the
task service treats them as an upsert of the account with its new role.

## HTTP endpoints

Every response is a JSON object: `{"status": "ok", "data": ...}` on success
or `{"status": "error", "error": "..."}` on failure. Public routes live at the
root; protected routes live under `/api` and expect an
`Authorization: Bearer token` header carrying a token from the auth service's
login. A missing or invalid token gives 403, as does a role not listed below.

Auth service:

| Method | Path                       | Roles           |
|--------|----------------------------|-----------------|
| GET    | `/status`                  | public          |
| POST   | `/login`                   | public          |
| POST   | `/api/create-account`      | manager, admin  |
| POST   | `/api/change-account-role` | manager, admin  |

Task service:

| Method | Path                    | Roles                                   |
|--------|-------------------------|-----------------------------------------|
| GET    | `/status`               | public                                  |
| GET    | `/api/tasks/<user_id>`  | admin, manager                          |
| GET    | `/api/tasks/`           | developer, admin, manager               |
| POST   | `/api/create-task`      | developer, admin, manager, accountant   |
| POST   | `/api/complete-task`    | developer, admin, manager               |
| POST   | `/api/assign-tasks`     | admin, manager                          |

## What it does not do

- There is no command-line program; the services are wired and served from
  your own code as shown above.
- Messaging is in-process only: `InMemoryBroker` keeps its topics in memory
  and does not talk to any external message broker, so messages are lost when
  the process ends.
- The auth service subscribes to no topics; its `AuthEventReader` ignores
  every message.
- There are no accounting or analytics services.