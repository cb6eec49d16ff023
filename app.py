from flask import Flask, jsonify
import logging

from core import config
from api_v1 import api_v1

app = Flask(__name__)
app.register_blueprint(api_v1, url_prefix='/api/v1')
app.logger.setLevel(config.LOG_LEVEL)

@app.route('/health')
def health():
    return jsonify({'status': 'ok', 'data_root': str(config.DATA_ROOT)})

if __name__ == '__main__':
    logging.basicConfig(level=config.LOG_LEVEL)
    config.DATA_ROOT.mkdir(parents=True, exist_ok=True)
    app.run(host='127.0.0.1', port=5000)
