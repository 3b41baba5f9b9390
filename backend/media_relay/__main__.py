from media_relay.main import run

run()
