from dashcam_telemetry.main import run

run()
