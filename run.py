import uvicorn

from codeplanner.config import PlannerConfig

if __name__ == "__main__":
    cfg = PlannerConfig.from_env()
    print(f"CodePlanner relay on http://{cfg.host}:{cfg.port} (model: {cfg.deepseek_model})")
    uvicorn.run("server.api:app", host=cfg.host, port=cfg.port, reload=False)
