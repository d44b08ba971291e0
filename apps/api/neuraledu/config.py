import os,yaml
_cfg=None
def get_config():
  global _cfg
  if _cfg is not None: return _cfg
  path=os.getenv('NEURALEDU_CONFIG') or os.path.join(os.path.dirname(__file__),'..','config.yaml')
  try:
    with open(path,'r',encoding='utf-8') as f: _cfg=yaml.safe_load(f) or {}
  except OSError:
    _cfg={}
  return _cfg
def section(name:str)->dict:
  return get_config().get(name,{}) or {}
def reset_config():
  global _cfg
  _cfg=None
