"""
Tado Collector Backend
======================

Polls the tado° cloud API and writes the readings to InfluxDB.

HOW IT'S ORGANIZED:
------------------
- models/    = Data structures (tokens, tado payloads, measurements)
- services/  = Workers (login, tado client, scheduler, poller, InfluxDB)
- routers/   = API endpoints (the login helper)
- config.py  = Settings from the environment
- main.py    = Puts it all together and starts the server
"""
