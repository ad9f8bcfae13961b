from socdrc.api.routes import router
