import csv, io, time
from typing import Dict, List
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

def _stamp(ts)->str:
    return time.strftime('%Y-%m-%d %H:%M:%S', time.localtime((ts or 0)/1000))

def events_csv(events:List[Dict])->bytes:
    buf=io.StringIO(); w=csv.writer(buf); w.writerow(['id','ts','time','type','username','message'])
    for e in events: w.writerow([e.get('id'), int(e.get('ts') or 0), _stamp(e.get('ts')), e.get('type'), e.get('username') or '', e.get('message') or ''])
    return buf.getvalue().encode('utf-8')

def events_pdf(events:List[Dict], title:str="NeuralEdu Event Log")->bytes:
    buf=io.BytesIO(); c=canvas.Canvas(buf, pagesize=letter); width, height=letter; y=height-50
    c.setFont("Helvetica-Bold", 14); c.drawString(50, y, title); y-=20
    c.setFont("Helvetica", 10)
    for e in events:
        line=f"{_stamp(e.get('ts'))}  [{(e.get('type') or '').upper()}]  {e.get('message') or ''}"
        for chunk in [line[i:i+95] for i in range(0, len(line), 95)]:
            if y<60: c.showPage(); y=height-50; c.setFont("Helvetica", 10)
            c.drawString(50, y, chunk); y-=12
    c.showPage(); c.save(); return buf.getvalue()
